"""
BoardScan Backend — Services Layer
====================================

What:  Business rules between the routes (HTTP) and the database.
How:   Stateless singletons. Every method receives the request's AsyncSession
       (and the acting user where authorization matters) and returns pydantic
       schemas, so routes never touch ORM objects.

Service Inventory:
    - VisionService (abstract) / GeminiVisionService: board classification
    - ImageService: upload validation, storage and cleanup
    - ScanService: scan workflow, derived pricing, record CRUD and listing
    - LotService: lot lifecycle and rollup recomputation
    - ActivityService: activity sessions and time-spent statistics
    - StatsService: dashboard aggregates
    - BoardNameService: board-name catalog
    - UserService: accounts and the startup admin bootstrap
"""
