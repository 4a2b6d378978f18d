"""
Infrastructure orchestration.

- application_context: ApplicationContext (startup and shutdown ordering)
"""
