# Freetime OS - free-time inventory core
