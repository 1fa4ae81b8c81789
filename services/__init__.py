"""
Service layer: collaborators behind narrow interfaces (notification
dispatch, payment gateway) and the scheduled automation runner.
"""
