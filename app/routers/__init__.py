"""
Routers module - API endpoint handlers organized by feature.

- intent: spoken command resolution, fallback-only parsing and AI usage stats
"""
