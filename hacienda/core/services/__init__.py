"""Application services: submission, status polling and the submit-and-wait pipeline."""
