"""Asset store: uploaded file metadata. Bytes live in app.designreview.storage."""
