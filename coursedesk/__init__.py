"""
coursedesk - course administration dashboard on top of a hosted record store.

Rooms, instructors, courses, participants and registrations live in five
collections of the store; this package loads them, joins them in memory and
derives the dashboard views (fill rates, course status, revenue, ...).
"""
