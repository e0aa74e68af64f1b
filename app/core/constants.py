"""Application-wide constants."""

# Default mock user for development/testing
DEFAULT_USER_ID = "knowledge-test-user"
DEFAULT_USER_NAME = "Knowledge Test User"
DEFAULT_USER_EMAIL = "knowledge-test-user@example.com"
# Default user object used when authentication is not provided
DEFAULT_USER = {
    "id": DEFAULT_USER_ID,
    "name": DEFAULT_USER_NAME,
    "email": DEFAULT_USER_EMAIL
}

# Returned by the search engine when nothing clears the similarity threshold
NO_RELEVANT_DOCUMENTS = "No relevant documents found in the knowledge base."

# Topic tags attached to every user correction
CORRECTION_TOPICS = ["preference", "correction"]
