"""Contacts and companies -- models, schemas, and RecordRepository."""
