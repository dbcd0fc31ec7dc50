from teppen.providers.google_gbp.adapter import GoogleBusinessProfileAdapter

__all__ = ["GoogleBusinessProfileAdapter"]
