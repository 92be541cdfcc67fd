# Supabase tables: properties, property_vibes
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

properties:
- id: uuid (primary key)
- zpid: text (nullable) - Zillow property id, required for image refresh
- address, city, state, zip_code: text
- price: numeric
- bedrooms: int, bathrooms: numeric, square_feet: int
- property_type: text - e.g. single_family, house, townhome, condo
- year_built: int (nullable), lot_size_sqft: int (nullable)
- amenities: text[] (nullable), description: text (nullable)
- images: text[] (nullable)
- listing_status: text, is_active: boolean
- zillow_images_refreshed_at: timestamp (nullable)
- zillow_images_refreshed_count: int (nullable)
- zillow_images_refresh_status: text (nullable) - ok, no_images
- created_at, updated_at: timestamp

property_vibes:
- property_id: uuid (unique, foreign key to properties.id)
- tagline, vibe_statement: text
- feature_highlights, lifestyle_fits, primary_vibes: jsonb
- suggested_tags, emotional_hooks, images_analyzed: text[]
- aesthetics: jsonb
- input_data: jsonb, raw_output: text
- model_used: text, source_data_hash: text
- generation_cost_usd: numeric, confidence: numeric
- created_at, updated_at: timestamp
"""
