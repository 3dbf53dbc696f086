# Model bases and abstract interfaces
