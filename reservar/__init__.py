"""
Reservar - barbershop booking flow.

Hosts the client booking wizard (gender -> services -> barbers ->
barber profile -> date & time -> payment) in front of the salon REST API.
"""
