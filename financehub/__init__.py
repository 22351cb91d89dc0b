"""FinanceHUB - API de back-office"""
