"""
Application package initializer.

The project is organised into logical pieces: ``core`` holds settings,
logging, persistence and authentication adapters, ``schemas`` the
pydantic models exchanged over the API, ``services`` the business
logic, and ``api/v1`` the versioned HTTP routes.
"""
