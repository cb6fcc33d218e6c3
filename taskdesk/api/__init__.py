"""TaskDesk HTTP API — FastAPI application, task routes and the error responder."""
