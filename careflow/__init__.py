"""Care-flow orchestration engine - orders, appointments and encounters"""
