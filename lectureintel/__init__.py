"""
Lecture Intelligence System: feedback analytics for professors.
"""
