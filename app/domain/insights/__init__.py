"""Insights domain - health score, recommendations, predictions and smart status"""
