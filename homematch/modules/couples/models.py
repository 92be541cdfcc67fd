# Supabase tables: user_profiles, user_property_interactions, household_property_resolutions
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

user_profiles:
- id: uuid (primary key, references auth.users.id)
- household_id: uuid (nullable, foreign key to households.id)
- display_name: text (nullable)
- email: text (nullable)

user_property_interactions:
- id: uuid (primary key)
- user_id: uuid (not null)
- property_id: uuid (foreign key to properties.id, not null)
- household_id: uuid (nullable) - stamped at write time
- interaction_type: text (not null) - values: like, dislike, skip, view
- score_data: jsonb (nullable) - may carry free-text notes
- created_at: timestamp (default: now())

household_property_resolutions:
- household_id: uuid (not null)
- property_id: uuid (not null)
- resolution_type: text - values: scheduled_viewing, saved_for_later, final_pass, discussion_needed
- resolved_by: uuid
- resolved_at: timestamp
- updated_at: timestamp
- unique constraint on (household_id, property_id)

RPC functions:
- get_household_mutual_likes(p_household_id) -> property_id, liked_by_count, first_liked_at, last_liked_at, user_ids
- get_household_activity_enhanced(p_household_id, p_limit, p_offset) -> interaction rows joined with
  user_display_name, property_address, property_price, property_bedrooms, property_bathrooms, property_images
"""
