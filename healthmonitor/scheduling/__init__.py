"""
Medication reminder scheduling, adherence tracking and appointment countdowns
"""
