"""
Entry point for Flask.

Usage (from project root):

    flask --app run.py --debug run

CLI commands:

    flask --app run.py db upgrade
    flask --app run.py create-user admin
    flask --app run.py seed-demo
    flask --app run.py statement 1 --cutoff 2024-01-31
"""

from bizdesk import create_app

# WSGI application object; `flask run` looks for this `app` variable.
app = create_app()

if __name__ == "__main__":
    # Dev only; use `flask run` or a WSGI server otherwise.
    app.run(debug=True)
