# Supabase tables: neighborhoods, neighborhood_vibes
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

neighborhoods:
- id: uuid (primary key)
- name, city, state, metro_area: text
- walk_score, transit_score: int (nullable)
- median_price: numeric (nullable)

neighborhood_vibes:
- neighborhood_id: uuid (unique, foreign key to neighborhoods.id)
- tagline, vibe_statement: text
- neighborhood_themes, local_highlights, resident_fits: jsonb
- suggested_tags: text[]
- model_used, source_data_hash: text
- generation_cost_usd, confidence: numeric
- created_at, updated_at: timestamp

The table may not exist on databases that never ran the neighborhood vibes migration.
"""
