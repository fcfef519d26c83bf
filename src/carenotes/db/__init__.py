"""Database layer: models, repositories, schemas and engine setup."""
