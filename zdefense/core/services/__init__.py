"""
Application-level services.

- container: ServiceContainer (builds and hands out the domain services)
- error_response_service: ErrorResponseService (exception -> handler response)
"""
