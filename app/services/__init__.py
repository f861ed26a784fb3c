"""
Services layer - report lifecycle business logic.

DESIGN PRINCIPLE:
- Services contain business logic, NOT routes
- The lifecycle engine is the only writer of report status
- Persistence, classifier and notifications are injected behind interfaces
"""
