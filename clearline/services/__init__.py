"""Clearline services.

- trigger_service: deterministic RSD trigger matching
- boundary_service: rule engine, model fallback, persistence, Detect API
- llm_service: generative-language client with strict JSON handling
- pattern_service: feedback storage and per-sender profiles
"""
