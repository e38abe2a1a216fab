"""Exchange bounded context: LN Markets trades, tickers and risk."""
