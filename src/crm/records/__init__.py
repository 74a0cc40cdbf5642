"""Record layer -- domain schemas, in-memory entity stores, and record services.

Provides Pydantic schemas (Contact, Deal, Activity and their create/update
payloads), EntityStore (owned in-memory collection with integer identifier
assignment), the per-entity record services exposing the async CRUD contract,
fixture seeding and snapshot export/import, and form-boundary validation.
"""
