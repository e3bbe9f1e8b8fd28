"""
Card Press Backend - REST API that turns a web form into a finished card PDF

This package provides a FastAPI-based web service that fills a layered
document template through a cloud image-editing service. It enables:

- Accepting applicant details and a signature image from a browser form
- Deriving the synthetic document number and date of birth printed on the card
- Staging the signature and a random stock photo in S3 for the editing service
- Submitting the layer edit job, polling it to completion, and exporting a PDF
- Storing arbitrary result files uploaded under a caller-supplied id

Key Components:
    - main: FastAPI application and HTTP endpoint definitions
    - orchestrator: Submit / poll / export coordinator for one edit job
    - editing_service: HTTP client for the editing service
    - edit_requests: Layer edit payload builders per endpoint shape
    - credentials: Token provider and process-wide credential cache
    - asset_store: S3 uploads and presigned links
    - identifiers: Document number and date of birth derivation
    - configuration: Config loading, environment overrides and logging

Usage:
    Run the API server with:
        uvicorn card_press_backend.main:app --host 0.0.0.0 --port 3001

Required environment (or .env):
    CLIENT_ID, CLIENT_SECRET, S3_BUCKET_NAME, and either TEMPLATE_HREF or a
    template uploaded to the bucket at TEMPLATE_KEY.
"""
