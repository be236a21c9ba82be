"""
Schemas Pydantic da API.
"""
