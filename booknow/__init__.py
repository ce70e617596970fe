"""Book Now - consultation booking API"""
