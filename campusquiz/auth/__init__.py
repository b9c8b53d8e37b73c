"""
Identity records consumed by the quiz engine.

Login, registration and credentials belong to the identity service; this
package only maps the roster rows the engine reads.
"""
