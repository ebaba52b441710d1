"""Agent Gateway Layer.

Proxies chat requests from the triage front end to the upstream inference
agent with:
  - Request Spacing Limiter (one shared admission queue, 1.5s apart)
  - Retrying Client (exponential backoff on 429 and network failures)
  - Lenient JSON Extractor (recovers JSON from noisy agent output)
  - Response Normalizer (one envelope for every agent response shape)
"""
