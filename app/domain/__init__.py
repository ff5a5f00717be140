"""Domain packages: schemas, repository, service and router per business area"""
