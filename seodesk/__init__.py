"""
SEO management platform: keyword, backlink, content and traffic analysis
for multi-tenant projects stored in Supabase.
"""
