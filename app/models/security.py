"""Role security code document."""

SECURITY = "security"

# Single document holding the hashed code of every role
ROLE_SECURITY_DOC = "role_security"
