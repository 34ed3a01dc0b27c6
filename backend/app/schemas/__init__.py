# Pydantic schemas (camelCase on the wire, see common.CamelModel)
