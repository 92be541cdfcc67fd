# Supabase tables: user_property_interactions (joined to properties)
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

user_property_interactions:
- id: uuid (primary key)
- user_id: uuid (not null)
- property_id: uuid (foreign key to properties.id, not null)
- household_id: uuid (nullable)
- interaction_type: text (not null) - values: like, dislike, skip, view
- created_at: timestamp (default: now()) - also the list pagination cursor
- one row per (user_id, property_id): a new interaction replaces the previous one

RPC functions:
- get_user_interaction_summary(p_user_id) -> rows of (interaction_type, count)
"""
