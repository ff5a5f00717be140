"""Analytics domain - dashboard summaries and trends"""
