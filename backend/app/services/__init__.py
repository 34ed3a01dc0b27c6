# Domain services; routers import the modules directly
