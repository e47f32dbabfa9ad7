"""
Services layer - business logic goes here.

DESIGN PRINCIPLE:
- Services contain business logic, NOT routes
- Services raise app.core.errors exceptions; routes never build error responses
- Every moderator decision goes through ModerationService
"""
