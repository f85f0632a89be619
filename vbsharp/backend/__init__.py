"""C# code generation."""
