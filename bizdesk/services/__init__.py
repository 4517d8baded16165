"""
Domain services. Routes and CLI commands call these; they never query the session directly.
"""
