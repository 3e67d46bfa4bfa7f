"""
Services package.

- cars: car repository (create / list / delete / status)
- images, storage: data URI ingestion into Supabase Storage
- extraction: Gemini photo -> listing draft / search hint
- admission: rate limit gate for the public image search
- revalidation: frontend cache invalidation signal
"""
