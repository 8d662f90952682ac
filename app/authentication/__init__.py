"""
Authentication application.

Identity collaborator for the chat core: an email-login User with a
marketplace role, and JWT token endpoints for existing accounts.
Registration, password reset and social login are out of scope.

Key components:
    - User model: Custom email-based user with role (user, agent, admin)
    - UserSummarySerializer: Public identity embedded in chat payloads
    - create_chat_user: Management command for seeding accounts

Usage:
    from authentication.models import User, UserRole
"""
