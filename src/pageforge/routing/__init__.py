"""Route compilation: page regexes, custom routes and the routes manifest."""
