"""Personalized recommendations for the Madifa streaming catalog."""
