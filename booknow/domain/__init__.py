"""Domain packages: repository, service, router and schemas per resource"""
