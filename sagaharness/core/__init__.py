"""
Core package: actions, reducers, the store, and the recording and wait
machinery behind SagaTester.
"""
