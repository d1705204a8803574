"""ETL package: staging readers/cleaners and warehouse loaders."""
