"""Time tracking domain - per-task time entries"""
