from fastapi import Request

from availability.services.stock_engine import StockEngine


def get_stock_engine(request: Request) -> StockEngine:
    """Dependency returning the engine built in the application lifespan"""
    return request.app.state.stock_engine
