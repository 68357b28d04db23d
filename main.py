import logging
from fastapi import FastAPI
from shopcore.api.routes import orders
from shopcore.core.config import LOG_LEVEL

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Shop Order Core",
    description="Order placement, cancellation and order history projections",
    version="1.0.0"
)

# Include routers
app.include_router(orders.router, prefix="/api/v1/orders", tags=["orders"])

@app.get("/")
async def root():
    return {"message": "Shop Order Core API"}

@app.get("/health")
async def health_check():
    return {"status": "healthy"}

if __name__ == "__main__":
    import uvicorn
    from shopcore.core.database import engine
    from shopcore.models.database import Base

    Base.metadata.create_all(bind=engine)
    uvicorn.run(app, host="0.0.0.0", port=8000)
